"""
OpenMediaID Command Line Interface.

Provides commands for generating keys, packing media into .medid packages,
verifying package signatures, and inspecting package contents.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from medid.canonical import to_storage_json
from medid.config import DEFAULT_KEY_SIZE, print_config
from medid.encryption import encrypt_private_key, load_encrypted_private_key
from medid.errors import MedidError
from medid.keys import export_public_key, generate_keypair, load_private_key, public_key_hint
from medid.models import MediaCollection, MediaEntry, MedidDocument
from medid.package import SaveOptions, load, try_save
from medid.verifier import Verifier

PASSWORD_ENV = "MEDID_KEY_PASSWORD"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s'
    )


def _password(args: argparse.Namespace) -> Optional[str]:
    return args.password or os.environ.get(PASSWORD_ENV)


def cmd_keygen(args: argparse.Namespace) -> int:
    """Generate an RSA key pair, optionally password-protecting the private key."""
    out_dir = Path(args.out_dir)
    try:
        keys = generate_keypair(args.size)
        out_dir.mkdir(parents=True, exist_ok=True)

        password = _password(args)
        if password:
            private_path = out_dir / "private.key.enc"
            private_path.write_bytes(encrypt_private_key(keys.private_key, password))
        else:
            private_path = out_dir / "private.key"
            private_path.write_bytes(keys.private_key)
            print("⚠️  Warning: private key written unencrypted (use --password)", file=sys.stderr)

        public_path = out_dir / "public.key"
        public_path.write_bytes(keys.public_key)

        print(f"Private key: {private_path}")
        print(f"Public key:  {public_path}")
        print(f"Key hint:    {keys.public_key_hint}")
        return 0

    except (MedidError, OSError) as e:
        print(f"Error generating keys: {e}", file=sys.stderr)
        return 1


def cmd_pack(args: argparse.Namespace) -> int:
    """Pack media files into a .medid package."""
    entries = []
    for name in args.files:
        path = Path(name)
        if not path.is_file():
            print(f"Error: File not found: {path}", file=sys.stderr)
            return 1
        entries.append(MediaEntry(filename=path.name, source_path=str(path.resolve())))

    document = MedidDocument(
        collection=MediaCollection(name=args.name, publisher=args.publisher, entries=entries)
    )
    options = SaveOptions(
        include_sha256=args.sha256,
        include_thumbnails=not args.no_thumbnails,
        include_preview_media=not args.no_previews,
    )

    try:
        if args.key:
            if not args.signer:
                print("Error: --signer is required when signing with --key", file=sys.stderr)
                return 1
            blob = Path(args.key).read_bytes()
            password = _password(args)
            if password:
                private_key = load_encrypted_private_key(blob, password)
            else:
                private_key = load_private_key(blob)
            options.private_key = private_key
            options.signer_name = args.signer
            options.public_key_hint = args.hint
            if args.embed_public_key:
                options.public_key = export_public_key(private_key)
    except (MedidError, OSError) as e:
        print(f"Error loading signing key: {e}", file=sys.stderr)
        return 1

    ok, errors = try_save(document, args.output, options)
    if not ok:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    print(f"✅ Wrote {args.output}")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    """Verify the signature of a .medid package."""
    try:
        document, embedded_key = load(args.package)
        if args.key:
            public_key = Path(args.key).read_bytes()
        else:
            public_key = embedded_key
            if public_key is not None:
                print("⚠️  Warning: using the package's own public.key", file=sys.stderr)

        valid = public_key is not None and Verifier(public_key).verify(document)
        signature = document.signature

        if args.json:
            result = {
                "valid": valid,
                "signed": document.is_signed,
                "signer": signature.signer if signature else None,
                "publicKeyHint": signature.public_key_hint if signature else None,
            }
            if valid:
                result["keyHint"] = public_key_hint(public_key)
            print(json.dumps(result, indent=2))
        elif valid:
            print("✅ VALID")
            print(f"   Signer: {signature.signer}")
            print(f"   Hint:   {signature.public_key_hint}")
        elif not document.is_signed:
            print("❌ UNSIGNED")
        else:
            print("❌ INVALID")
        return 0 if valid else 1

    except (MedidError, OSError) as e:
        print(f"Error verifying package: {e}", file=sys.stderr)
        return 1


def cmd_inspect(args: argparse.Namespace) -> int:
    """Print the document stored in a .medid package."""
    try:
        document, public_key = load(args.package)
    except (MedidError, OSError) as e:
        print(f"Error reading package: {e}", file=sys.stderr)
        return 1

    print(to_storage_json(document))
    if public_key is not None:
        print(f"# public.key present ({len(public_key)} bytes)", file=sys.stderr)
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Show the effective environment configuration."""
    print_config()
    return 0


def main(argv=None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog='medid',
        description='OpenMediaID CLI - signed packages for media collections'
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose output')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # keygen command
    p_keygen = subparsers.add_parser('keygen', help='Generate an RSA key pair')
    p_keygen.add_argument('--out-dir', default='.', help='Directory for the key files')
    p_keygen.add_argument('--size', type=int, default=DEFAULT_KEY_SIZE, help='RSA key size in bits')
    p_keygen.add_argument('--password', help=f'Encrypt the private key (or set {PASSWORD_ENV})')

    # pack command
    p_pack = subparsers.add_parser('pack', help='Pack media files into a .medid package')
    p_pack.add_argument('files', nargs='+', help='Media files to include')
    p_pack.add_argument('-o', '--output', required=True, help='Output .medid path')
    p_pack.add_argument('--name', required=True, help='Collection name')
    p_pack.add_argument('--publisher', help='Collection publisher')
    p_pack.add_argument('--key', help='Private key file (DER, PEM, or encrypted blob)')
    p_pack.add_argument('--password', help=f'Password for an encrypted key (or set {PASSWORD_ENV})')
    p_pack.add_argument('--signer', help='Signer display name')
    p_pack.add_argument('--hint', help='Public key hint stored with the signature')
    p_pack.add_argument('--embed-public-key', action='store_true', help='Store public.key in the package')
    p_pack.add_argument('--sha256', action='store_true', help='Also record SHA-256 hashes')
    p_pack.add_argument('--no-thumbnails', action='store_true', help='Skip thumbnail generation')
    p_pack.add_argument('--no-previews', action='store_true', help='Skip preview clip generation')

    # verify command
    p_verify = subparsers.add_parser('verify', help='Verify a .medid package signature')
    p_verify.add_argument('package', help='The .medid package')
    p_verify.add_argument('--key', help='Public key file (DER or PEM)')
    p_verify.add_argument('--json', action='store_true', help='Output as JSON')

    # inspect command
    p_inspect = subparsers.add_parser('inspect', help='Print the document of a .medid package')
    p_inspect.add_argument('package', help='The .medid package')

    # config command
    subparsers.add_parser('config', help='Show effective configuration')

    args = parser.parse_args(argv)

    setup_logging(args.verbose if hasattr(args, 'verbose') else False)

    if args.command == 'keygen':
        return cmd_keygen(args)
    elif args.command == 'pack':
        return cmd_pack(args)
    elif args.command == 'verify':
        return cmd_verify(args)
    elif args.command == 'inspect':
        return cmd_inspect(args)
    elif args.command == 'config':
        return cmd_config(args)
    else:
        parser.print_help()
        return 0


if __name__ == '__main__':
    sys.exit(main())
