"""
# Heimdall

Data-access layer of the Heimdall blog engine: MongoDB persistence for administrator
accounts, blog posts, CMS pages and the login audit trail.

- **`models`**: entities, request/response DTOs, filters and domain constants.
- **`repositories`**: one repository per collection on top of Motor.
- **`database`**: the shared `DatabaseManager` connection singleton.
- **`services`**: background maintenance sweeps.
"""

__version__ = "0.1.0"
