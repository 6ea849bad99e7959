"""FastAPI REST API for Storywire.

This module provides the REST API for projects, stories and webhook
event records.

Example:
    ```python
    import uvicorn
    from storywire.api import create_app

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)
    ```

Or run directly:
    ```bash
    uvicorn storywire.api:app --reload
    ```
"""

from .app import app, create_app
from .router import router

__all__ = [
    "app",
    "create_app",
    "router",
]
