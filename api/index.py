# Serverless entry point: the platform imports ``app`` from this module.
import os
import sys

ROOT_DIR = os.path.join(os.path.dirname(__file__), '..')
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from powersite import create_app  # noqa: E402

app = create_app()
