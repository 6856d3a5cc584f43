"""Operator CLI for the bulletin board.

Admin commands log in with ADMIN_ID / ADMIN_PASSWORD from the environment.
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from board.core.errors import BoardError
from board.services.admin import (
    admin_login,
    add_category,
    backup_json,
    delete_category,
    fetch_categories_admin,
    fetch_post_stats_admin,
    reorder_categories,
    restore_data,
    update_category,
)
from board.services.firebase import init_firestore, init_settings
from board.utils.logging import setup_logging


def _session():
    from board.config import get_settings
    settings = get_settings()
    return admin_login(settings.admin_id, settings.admin_password)


def _collections(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    return [c.strip() for c in value.split(",") if c.strip()]


# ==================== COMMANDS ====================

async def cmd_init(args):
    if args.settings_only:
        created = await init_settings()
        print("Settings created" if created else "Settings already exist")
        return
    post_ids = await init_firestore()
    print(f"Initialized settings and {len(post_ids)} sample posts")


async def cmd_backup(args):
    text = await backup_json(
        _session(),
        collections=_collections(args.collections),
        include_users=args.include_users,
    )
    if args.out:
        Path(args.out).write_text(text, encoding="utf-8")
        print(f"Backup written: {args.out}")
    else:
        print(text)


async def cmd_restore(args):
    path = Path(args.file)
    if not path.exists():
        raise BoardError(f"Backup file not found: {args.file}")

    result = await restore_data(
        _session(),
        path.read_text(encoding="utf-8"),
        collections=_collections(args.collections),
        overwrite=args.overwrite,
        delete_before_restore=args.delete_before_restore,
    )
    print(result.message)
    for name, count in result.restored_counts.items():
        print(f"  {name}: {count} restored, {result.skipped_counts.get(name, 0)} skipped, "
              f"{result.failed_counts.get(name, 0)} failed")
    for warning in result.warnings:
        print(f"WARNING: {warning}", file=sys.stderr)


async def cmd_categories_list(args):
    categories = await fetch_categories_admin(_session())
    if args.json:
        print(json.dumps([c.to_dict() for c in categories], ensure_ascii=False, indent=2))
        return
    for category in categories:
        icon = f"{category.icon} " if category.icon else ""
        print(f"{category.id}: {icon}{category.name}")
    print(f"\n--- {len(categories)} categories ---")


async def cmd_categories_add(args):
    category = await add_category(_session(), args.name, icon=args.icon)
    print(f"Added: {category.id}")


async def cmd_categories_rename(args):
    category = await update_category(_session(), args.id, args.name, icon=args.icon)
    print(f"Updated: {category.id} -> {category.name}")


async def cmd_categories_delete(args):
    result = await delete_category(_session(), args.id)
    if result.reassigned_posts:
        print(f"Deleted: {result.category_id} ({result.reassigned_posts} posts moved to {result.target_category_id})")
    else:
        print(f"Deleted: {result.category_id}")


async def cmd_categories_reorder(args):
    ordered = await reorder_categories(_session(), args.ids)
    print("Order: " + ", ".join(c.id for c in ordered))


async def cmd_stats(args):
    stats = await fetch_post_stats_admin(_session())
    print(json.dumps(stats, ensure_ascii=False, indent=2))


# ==================== MAIN ====================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="board-admin",
        description="Bulletin board operator CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  board-admin init
  board-admin backup --out backup.json --include-users
  board-admin restore backup.json --overwrite
  board-admin categories add "Tech News" --icon 💻
  board-admin categories delete tech-news
  board-admin categories reorder general tech-news
"""
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # init
    init_p = subparsers.add_parser("init", help="Create settings and sample posts")
    init_p.add_argument("--settings-only", action="store_true", help="Skip sample posts")
    init_p.set_defaults(func=cmd_init)

    # backup
    backup_p = subparsers.add_parser("backup", help="Export collections as JSON")
    backup_p.add_argument("--out", help="Output file (default stdout)")
    backup_p.add_argument("--collections", help="Comma-separated collections")
    backup_p.add_argument("--include-users", action="store_true", help="Include users collection")
    backup_p.set_defaults(func=cmd_backup)

    # restore
    restore_p = subparsers.add_parser("restore", help="Import a JSON backup")
    restore_p.add_argument("file", help="Backup file")
    restore_p.add_argument("--collections", help="Comma-separated collections")
    restore_p.add_argument("--overwrite", action="store_true", help="Replace existing documents")
    restore_p.add_argument("--delete-before-restore", action="store_true", help="Clear collections first")
    restore_p.set_defaults(func=cmd_restore)

    # categories
    cat_p = subparsers.add_parser("categories", aliases=["cat"], help="Category commands")
    cat_sub = cat_p.add_subparsers(dest="action", required=True)

    cat_list = cat_sub.add_parser("list", aliases=["ls"], help="List categories")
    cat_list.add_argument("--json", action="store_true", help="JSON output")
    cat_list.set_defaults(func=cmd_categories_list)

    cat_add = cat_sub.add_parser("add", help="Add category")
    cat_add.add_argument("name", help="Category name (ID is derived from it)")
    cat_add.add_argument("--icon", help="Icon")
    cat_add.set_defaults(func=cmd_categories_add)

    cat_rename = cat_sub.add_parser("rename", help="Rename category")
    cat_rename.add_argument("id", help="Category ID")
    cat_rename.add_argument("name", help="New name")
    cat_rename.add_argument("--icon", help='New icon ("" removes it)')
    cat_rename.set_defaults(func=cmd_categories_rename)

    cat_delete = cat_sub.add_parser("delete", aliases=["rm"], help="Delete category and move its posts")
    cat_delete.add_argument("id", help="Category ID")
    cat_delete.set_defaults(func=cmd_categories_delete)

    cat_reorder = cat_sub.add_parser("reorder", help="Set category order")
    cat_reorder.add_argument("ids", nargs="+", help="Every category ID in the new order")
    cat_reorder.set_defaults(func=cmd_categories_reorder)

    # stats
    stats_p = subparsers.add_parser("stats", help="Post statistics")
    stats_p.set_defaults(func=cmd_stats)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    try:
        asyncio.run(args.func(args))
    except BoardError as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
