"""First-run initialization: settings document and sample posts."""
from datetime import timedelta
from typing import Dict, List

from board.core.errors import ValidationError
from board.utils.logging import get_logger, log_execution
from ._client import get_store, Collections, GLOBAL_SETTINGS_ID
from ._retry import with_store_retry
from .board_settings import Category, DEFAULT_CATEGORIES, default_settings_document, fetch_categories
from .store import utc_now

logger = get_logger()

SEED_CATEGORIES = DEFAULT_CATEGORIES + [Category(id="tech", name="Tech", icon="💻")]

SAMPLE_POSTS = [
    {
        "title": "What's new in React 19",
        "content": "<p>React 19 is out. Actions, the new <strong>use</strong> hook and "
                   "server components improvements are the highlights.</p>",
        "category": "tech",
        "author": {"name": "Minjun Kim"},
        "authorId": "user_sample_1",
        "tags": ["react", "frontend", "javascript"],
    },
    {
        "title": "Tailwind CSS vs. Styled Components",
        "content": "<p>Utility-first classes prototype quickly; styled components keep styles "
                   "encapsulated per component. Which one do you use?</p>",
        "category": "tech",
        "author": {"name": "Sujin Lee"},
        "authorId": "user_sample_2",
        "tags": ["css", "frontend", "styling"],
    },
    {
        "title": "Weekend trip ideas",
        "content": "<h2>Day trips near the city</h2><ul><li>Riverside park</li>"
                   "<li>Botanical garden</li><li>Rail bike</li></ul>",
        "category": "general",
        "author": {"name": "Seoyeon Park"},
        "authorId": "user_sample_3",
        "tags": ["travel", "weekend"],
    },
    {
        "title": "Notes from trying a new LLM API",
        "content": "<p>Structured JSON output mode made it easy to plug into an existing "
                   "pipeline.</p>",
        "category": "tech",
        "author": {"name": "Hyunwoo Choi"},
        "authorId": "user_sample_4",
        "tags": ["ai", "api"],
    },
]


@with_store_retry(policy="admin", failure_message="Could not initialize settings. Please try again later.")
async def init_settings() -> bool:
    """Create the settings document if it does not exist.

    Returns:
        True if created, False if it already existed
    """
    store = get_store()

    def apply(txn):
        if txn.get(Collections.SETTINGS, GLOBAL_SETTINGS_ID) is not None:
            return False
        txn.set(Collections.SETTINGS, GLOBAL_SETTINGS_ID, default_settings_document(SEED_CATEGORIES))
        return True

    created = store.run_transaction(apply)
    if created:
        logger.info("settings_initialized", categories=[c.id for c in SEED_CATEGORIES])
    else:
        logger.info("settings_init_skipped", reason="exists")
    return created


@with_store_retry(policy="admin", failure_message="Could not add sample posts. Please try again later.")
async def _write_sample_posts(documents: Dict[str, Dict]) -> int:
    return get_store().set_many(Collections.POSTS, documents)


async def add_sample_posts() -> List[str]:
    """Write the sample posts in one batch, created one day apart.

    Posts whose category does not exist go to the first category.

    Returns:
        Created post IDs
    """
    category_ids = [c.id for c in await fetch_categories()]
    if not category_ids:
        raise ValidationError("Add a category before adding sample posts.")
    store = get_store()
    now = utc_now()

    documents = {}
    for index, sample in enumerate(SAMPLE_POSTS):
        created_at = now - timedelta(days=index)
        category = sample["category"] if sample["category"] in category_ids else category_ids[0]
        documents[store.new_id(Collections.POSTS)] = {
            **sample,
            "category": category,
            "commentCount": 0,
            "viewCount": 0,
            "createdAt": created_at,
            "updatedAt": created_at,
        }

    await _write_sample_posts(documents)
    logger.info("sample_posts_added", count=len(documents))
    return list(documents)


@log_execution("init_firestore")
async def init_firestore() -> List[str]:
    """Initialize settings, then add sample posts."""
    await init_settings()
    return await add_sample_posts()
