# ASGI entry point for the DocSign API
# Serve with: uvicorn asgi:application --host 0.0.0.0 --port 8000

import os
import sys
from pathlib import Path

# Add project to path
project_path = str(Path(__file__).resolve().parent)
if project_path not in sys.path:
    sys.path.insert(0, project_path)

# Load environment variables from .env file if present
from dotenv import load_dotenv
env_path = os.path.join(project_path, '.env')
if os.path.exists(env_path):
    load_dotenv(env_path)

# Import the FastAPI app
from docsign.main import app as application


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        application,
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
    )
