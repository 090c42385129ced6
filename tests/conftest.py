import os
import sys
import tempfile

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

# rest_api builds a module-level app from DB_PATH/YAML_PATH on import
_session_dir = tempfile.mkdtemp(prefix="fitness-tests-")
os.environ.setdefault("DB_PATH", os.path.join(_session_dir, "module.db"))
os.environ.setdefault("YAML_PATH", os.path.join(_session_dir, "module.yaml"))
os.environ.setdefault("TEST_MODE", "1")
