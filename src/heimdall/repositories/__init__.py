"""
# Repositories Package

One repository per collection, each composing a `DocumentStore` around a Motor
collection handle injected at construction:

- **`UserRepository`**: accounts, lockout counters and expired-lock scans (`users`).
- **`PostRepository`**: posts, public listings, view counter, scheduled scan (`posts`).
- **`PageRepository`**: CMS pages, template listings, scheduled scan (`pages`).
- **`LoginLogRepository`**: insert-only login audit trail and statistics (`loginLogs`).

The `get_*_repository()` factories bind a repository to the collection of the global
`db_manager`; call them after `db_manager.connect()`.

```python
from heimdall.repositories import get_post_repository

posts = get_post_repository()
items, total = await posts.get_published_list(PostFilter(keyword="mongo"), page=1, limit=10)
```
"""

from heimdall.database import db_manager
from heimdall.repositories import login_log_repository, page_repository, post_repository, user_repository
from heimdall.repositories.login_log_repository import LoginLogRepository
from heimdall.repositories.page_repository import PageRepository
from heimdall.repositories.post_repository import PostRepository
from heimdall.repositories.user_repository import UserRepository


def get_user_repository() -> UserRepository:
    return UserRepository(db_manager.get_collection(user_repository.COLLECTION_NAME))


def get_post_repository() -> PostRepository:
    return PostRepository(db_manager.get_collection(post_repository.COLLECTION_NAME))


def get_page_repository() -> PageRepository:
    return PageRepository(db_manager.get_collection(page_repository.COLLECTION_NAME))


def get_login_log_repository() -> LoginLogRepository:
    return LoginLogRepository(db_manager.get_collection(login_log_repository.COLLECTION_NAME))


__all__ = [
    "LoginLogRepository",
    "PageRepository",
    "PostRepository",
    "UserRepository",
    "get_login_log_repository",
    "get_page_repository",
    "get_post_repository",
    "get_user_repository",
]
