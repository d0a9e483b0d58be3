"""CLI: archive-client list | upload | link | download | delete."""
import argparse
import json
import sys
from pathlib import Path

from .client import ArchiveClient


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="archive-client", description="Upload and manage files in the archive")
    parser.add_argument("--base-url", default="http://localhost:6060", help="API base URL")
    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="List stored files")
    p_list.set_defaults(func=cmd_list)

    p_upload = sub.add_parser("upload", help="Upload files")
    p_upload.add_argument("files", nargs="+", help="Local file paths to upload")
    p_upload.add_argument("--content-type", default=None, help="Content type for all files (default: guessed)")
    p_upload.add_argument("--retries", type=int, default=0, help="Re-send on network errors (may store duplicates)")
    p_upload.set_defaults(func=cmd_upload)

    p_link = sub.add_parser("link", help="Print a time-limited download link")
    p_link.add_argument("key", help="Storage key")
    p_link.add_argument("--download", action="store_true", help="Force download under the original name")
    p_link.set_defaults(func=cmd_link)

    p_download = sub.add_parser("download", help="Download a file")
    p_download.add_argument("key", help="Storage key")
    p_download.add_argument("--dest", default=".", help="Destination file or directory")
    p_download.set_defaults(func=cmd_download)

    p_delete = sub.add_parser("delete", help="Delete files")
    p_delete.add_argument("keys", nargs="+", help="Storage keys")
    p_delete.set_defaults(func=cmd_delete)

    args = parser.parse_args(argv)
    client = ArchiveClient(base_url=args.base_url)
    try:
        return args.func(client, args)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        client.close()


def cmd_list(client: ArchiveClient, args: argparse.Namespace) -> int:
    files = client.list_files()
    print(json.dumps(files, indent=2))
    print(f"{len(files)} files", file=sys.stderr)
    return 0


def cmd_upload(client: ArchiveClient, args: argparse.Namespace) -> int:
    paths = [Path(f) for f in args.files]
    missing = [p for p in paths if not p.is_file()]
    if missing:
        print(f"Missing files: {missing}", file=sys.stderr)
        return 1
    results = []
    for p in paths:
        out = client.upload(p, content_type=args.content_type, retries=args.retries)
        results.append(out)
        print(f"  {p.name} -> {out['storage_key']}", file=sys.stderr)
    print(json.dumps(results, indent=2))
    return 0


def cmd_link(client: ArchiveClient, args: argparse.Namespace) -> int:
    out = client.get_link(args.key, download=args.download)
    print(out["url"])
    print(f"Expires in {out['expires_in']}s", file=sys.stderr)
    return 0


def cmd_download(client: ArchiveClient, args: argparse.Namespace) -> int:
    path = client.download(args.key, args.dest)
    print(str(path))
    return 0


def cmd_delete(client: ArchiveClient, args: argparse.Namespace) -> int:
    for key in args.keys:
        client.delete(key)
        print(f"Deleted {key}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
