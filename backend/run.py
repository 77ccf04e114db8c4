import uvicorn
import sys
import os

backend_dir = os.path.abspath(os.path.dirname(__file__))
sys.path.insert(0, backend_dir)

from calendar_api.config import load_config  # noqa: E402

if __name__ == "__main__":
    uvicorn.run(
        "calendar_api.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=load_config().port,
        log_level="info"
    )
