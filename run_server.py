import os
import uvicorn
import sys

sys.path.insert(0, os.getcwd())

from portflow.core.config import Config
from portflow.server.server import create_app

if __name__ == "__main__":
    config = Config()
    print(f"🚀 Starting Portflow API on {config.server_host}:{config.server_port}...")
    uvicorn.run(create_app(config=config), host=config.server_host, port=config.server_port)
