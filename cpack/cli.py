from __future__ import annotations

import os
import sys
import shutil
import logging
import argparse

from typing import List, Optional

from cpack.reader import CPack
from cpack.errors import CPackError
from cpack.constants import header_size


def _resolve_ids(archive: CPack, ids: Optional[List[int]]) -> List[int]:
    """Validate requested file ids against the archive.

    Args:
        archive: An open archive.
        ids: Requested ids; None or empty selects every file.

    Returns:
        The ids to process, in the order requested.
    """
    if not ids:
        return list(range(len(archive)))
    for file_id in ids:
        if not 0 <= file_id < len(archive):
            raise ValueError(f"file id {file_id} out of range (archive has {len(archive)} files)")
    return list(ids)


def cmd_list(archive: str) -> bool:
    """List archive entries as ``id<TAB>offset<TAB>length``.

    Args:
        archive: Path to a cpack file.
    """
    with CPack.open(archive) as pack:
        for file_id, entry in enumerate(pack):
            print(f"{file_id}\t{entry.file_offset}\t{entry.file_length}")
    return True


def cmd_info(archive: str) -> bool:
    """Show archive information.

    Args:
        archive: Path to a cpack file.
    """
    with CPack.open(archive) as pack:
        print(f"Archive: {archive}")
        print(f"  Size: {pack.source_length}")
        print(f"  Files: {len(pack)}")
        print(f"  Header bytes: {header_size(len(pack))}")
        print(f"  Payload bytes: {sum(e.file_length for e in pack)}")
    return True


def cmd_cat(archive: str, file_id: int) -> bool:
    """Write one file's content to stdout.

    Args:
        archive: Path to a cpack file.
        file_id: Zero-based position of the file in the archive.
    """
    with CPack.open(archive) as pack:
        (file_id,) = _resolve_ids(pack, [file_id])
        out = getattr(sys.stdout, "buffer", sys.stdout)
        with pack.get_file(file_id) as src:
            shutil.copyfileobj(src, out)
        out.flush()
    return True


def cmd_extract(archive: str, *, outdir: str = ".", ids: Optional[List[int]] = None, pattern: str = "{id}.bin", quiet: bool = False) -> bool:
    """Extract files into a directory.

    Args:
        archive: Path to a cpack file.
        outdir: Destination directory, created if missing.
        ids: File ids to extract; all files when empty.
        pattern: Output file name, formatted with ``id``.
        quiet: Suppress per-file output.
    """
    os.makedirs(outdir, exist_ok=True)
    with CPack.open(archive) as pack:
        selected = _resolve_ids(pack, ids)
        for file_id in selected:
            dest = os.path.join(outdir, pattern.format(id=file_id))
            with pack.get_file(file_id) as src, open(dest, "wb") as dst:
                shutil.copyfileobj(src, dst)
            if not quiet:
                print(f"  extracting: {file_id} -> {dest}")
    if not quiet:
        print(f"Done: {len(selected)} file(s) extracted to {outdir}")
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="cpack",
        description="cpack archive reader",
        epilog="Files in a cpack archive have no names; they are addressed by zero-based id.",
    )
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_list = sub.add_parser("list", help="List archive contents")
    ap_list.add_argument("archive", help="Archive path")

    ap_info = sub.add_parser("info", help="Show archive information")
    ap_info.add_argument("archive", help="Archive path")

    ap_cat = sub.add_parser("cat", help="Write one file to stdout")
    ap_cat.add_argument("archive", help="Archive path")
    ap_cat.add_argument("id", type=int, help="File id")

    ap_extract = sub.add_parser("extract", help="Extract files")
    ap_extract.add_argument("archive", help="Archive path")
    ap_extract.add_argument("ids", nargs="*", type=int, help="File ids to extract (default: all)")
    ap_extract.add_argument("--outdir", default=".", help="Output directory")
    ap_extract.add_argument("--pattern", default="{id}.bin", help="Output file name pattern (default: {id}.bin)")
    ap_extract.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    args = ap.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    try:
        if args.cmd == "list":
            success = cmd_list(args.archive)
        elif args.cmd == "info":
            success = cmd_info(args.archive)
        elif args.cmd == "cat":
            success = cmd_cat(args.archive, args.id)
        elif args.cmd == "extract":
            success = cmd_extract(args.archive, outdir=args.outdir, ids=args.ids, pattern=args.pattern, quiet=args.quiet)
        else:
            raise RuntimeError("Unknown command")
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except (CPackError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
