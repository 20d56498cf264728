from __future__ import annotations

import os
import tempfile

# web_api builds its app at import time; keep it off any real database.
os.environ["MONGODB_URI"] = ""
os.environ["FILE_STORE_DIR"] = tempfile.mkdtemp(prefix="rbac-test-store-")
os.environ["RATE_LIMIT_BACKEND"] = "memory"
