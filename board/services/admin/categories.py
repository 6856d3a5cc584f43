"""Administrator category management.

Categories are an array inside the singleton settings document, so every
mutation reads the whole array, modifies it and writes it back inside one
transaction. Calls run under the "admin" retry policy (5 attempts, 2 s base,
25 % jitter) because concurrent admins contend on that single document.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from board.core.errors import CategoryInUseError, NotFoundError, ValidationError
from board.services.firebase._client import get_store, Collections, GLOBAL_SETTINGS_ID, MAX_BATCH_SIZE
from board.services.firebase._retry import with_store_retry
from board.services.firebase.board_settings import (
    Category,
    default_settings_document,
    parse_categories,
    slugify,
)
from board.services.firebase.store import Where, utc_now
from board.utils.logging import get_logger
from .auth import AdminSession, require_admin

logger = get_logger()


@dataclass
class CategoryDeleteResult:
    """Outcome of delete_category."""
    category_id: str
    reassigned_posts: int
    target_category_id: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "categoryId": self.category_id,
            "reassignedPosts": self.reassigned_posts,
            "targetCategoryId": self.target_category_id,
        }


def _read_settings(txn) -> Dict[str, Any]:
    data = txn.get(Collections.SETTINGS, GLOBAL_SETTINGS_ID)
    if data is None:
        raise NotFoundError("Board settings not found.")
    return data


def _index_of(categories: List[Category], category_id: str) -> int:
    for index, category in enumerate(categories):
        if category.id == category_id:
            return index
    raise NotFoundError(f"Category '{category_id}' not found.")


def _write_categories(txn, categories: List[Category]) -> None:
    txn.update(Collections.SETTINGS, GLOBAL_SETTINGS_ID, {
        "categories": [c.to_dict() for c in categories],
        "updatedAt": utc_now(),
    })


@with_store_retry(policy="admin", failure_message="Could not load categories. Please try again later.")
async def fetch_categories_admin(session: AdminSession) -> List[Category]:
    """List categories in display order (admin only).

    Raises:
        NotFoundError: If settings document missing
    """
    require_admin(session)
    data = get_store().get(Collections.SETTINGS, GLOBAL_SETTINGS_ID)
    if data is None:
        raise NotFoundError("Board settings not found.")
    return parse_categories(data)


@with_store_retry(policy="admin", failure_message="Could not add the category. Please try again later.")
async def add_category(session: AdminSession, name: str, icon: Optional[str] = None) -> Category:
    """Add a category at the end of the list.

    The id is the slug of the name. A missing settings document is created with
    this category as the only one.

    Raises:
        ValidationError: If name empty, slug empty, or id/name already used
    """
    require_admin(session)
    name = (name or "").strip()
    if not name:
        raise ValidationError("Category name is required.")
    category_id = slugify(name)
    if not category_id:
        raise ValidationError("Cannot derive a category ID from this name. Use letters or digits.")
    category = Category(id=category_id, name=name, icon=icon)

    def apply(txn):
        data = txn.get(Collections.SETTINGS, GLOBAL_SETTINGS_ID)
        if data is None:
            txn.set(Collections.SETTINGS, GLOBAL_SETTINGS_ID, default_settings_document([category]))
            return True

        categories = parse_categories(data)
        if any(c.id == category_id for c in categories):
            raise ValidationError(f"Category ID '{category_id}' is already in use. Choose another name.")
        if any(c.name == name for c in categories):
            raise ValidationError(f"Category name '{name}' is already in use.")
        _write_categories(txn, categories + [category])
        return False

    bootstrapped = get_store().run_transaction(apply)
    logger.info("category_added", category_id=category_id, bootstrapped=bootstrapped, by=session.id)
    return category


@with_store_retry(policy="admin", failure_message="Could not update the category. Please try again later.")
async def update_category(
    session: AdminSession,
    category_id: str,
    name: str,
    icon: Optional[str] = None,
) -> Category:
    """Rename a category, keeping its id.

    Args:
        icon: New icon; None leaves it unchanged, "" removes it

    Raises:
        NotFoundError: If category missing
        ValidationError: If name empty or used by another category
    """
    require_admin(session)
    name = (name or "").strip()
    if not name:
        raise ValidationError("Category name is required.")

    def apply(txn):
        categories = parse_categories(_read_settings(txn))
        index = _index_of(categories, category_id)
        if any(c.name == name and i != index for i, c in enumerate(categories)):
            raise ValidationError(f"Category name '{name}' is already in use.")

        current = categories[index]
        new_icon = current.icon if icon is None else (icon or None)
        categories[index] = Category(id=current.id, name=name, icon=new_icon)
        _write_categories(txn, categories)
        return categories[index]

    category = get_store().run_transaction(apply)
    logger.info("category_updated", category_id=category_id, by=session.id)
    return category


@with_store_retry(policy="admin", failure_message="Could not delete the category. Please try again later.")
async def delete_category(session: AdminSession, category_id: str) -> CategoryDeleteResult:
    """Delete a category, moving its posts to the first remaining category.

    Post lookup, reassignment and array rewrite happen in one transaction.
    Nothing is written when the delete is rejected.

    Raises:
        NotFoundError: If category missing
        CategoryInUseError: If posts reference it and no other category exists
        ValidationError: If too many posts to reassign in one transaction
    """
    require_admin(session)

    def apply(txn):
        categories = parse_categories(_read_settings(txn))
        index = _index_of(categories, category_id)
        posts = txn.query(Collections.POSTS, where=[Where("category", "==", category_id)])

        remaining = categories[:index] + categories[index + 1:]
        target = remaining[0].id if remaining else None
        if posts:
            if target is None:
                raise CategoryInUseError(category_id, len(posts))
            if len(posts) + 1 > MAX_BATCH_SIZE:
                raise ValidationError(
                    f"Category '{category_id}' has {len(posts)} posts; move some first "
                    f"(at most {MAX_BATCH_SIZE - 1} can be reassigned at once)."
                )
            now = utc_now()
            for post in posts:
                txn.update(Collections.POSTS, post["id"], {"category": target, "updatedAt": now})

        _write_categories(txn, remaining)
        return CategoryDeleteResult(category_id, len(posts), target if posts else None)

    result = get_store().run_transaction(apply)
    logger.info(
        "category_deleted",
        category_id=category_id,
        reassigned=result.reassigned_posts,
        target=result.target_category_id,
        by=session.id,
    )
    return result


def _validate_permutation(existing_ids: List[str], proposed_ids: List[str]) -> None:
    if len(set(proposed_ids)) != len(proposed_ids):
        raise ValidationError("Category order contains duplicate IDs.")
    missing = [i for i in existing_ids if i not in proposed_ids]
    if missing:
        raise ValidationError(f"Category order is missing: {', '.join(missing)}. Include every category.")
    unknown = [i for i in proposed_ids if i not in existing_ids]
    if unknown:
        raise ValidationError(f"Unknown category IDs: {', '.join(unknown)}. Reordering cannot add categories.")


@with_store_retry(policy="admin", failure_message="Could not reorder categories. Please try again later.")
async def reorder_categories(session: AdminSession, category_ids: List[str]) -> List[Category]:
    """Reorder categories.

    Args:
        category_ids: Every existing category id exactly once, in the new order

    Raises:
        ValidationError: If category_ids is not a permutation of the current ids
    """
    require_admin(session)
    proposed = list(category_ids)

    def apply(txn):
        categories = parse_categories(_read_settings(txn))
        by_id = {c.id: c for c in categories}
        _validate_permutation([c.id for c in categories], proposed)
        ordered = [by_id[i] for i in proposed]
        _write_categories(txn, ordered)
        return ordered

    ordered = get_store().run_transaction(apply)
    logger.info("categories_reordered", order=proposed, by=session.id)
    return ordered
