"""Run script with proper environment loading"""
import sys
from pathlib import Path

# Make the agriassist package importable without installation
BACKEND_DIR = Path(__file__).resolve().parent
sys.path.insert(0, str(BACKEND_DIR))

if __name__ == "__main__":
    import uvicorn

    from agriassist.core.config import get_settings
    from agriassist.main import app

    settings = get_settings()

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )
