import os
import tempfile

# Keep test runs offline and out of the working directory
_scratch = tempfile.mkdtemp(prefix="roast_studio_tests_")
os.environ.setdefault("AUDIO_STORAGE_DIR", os.path.join(_scratch, "audio"))
os.environ.setdefault("DATABASE_URL", "sqlite:///" + os.path.join(_scratch, "default.db"))
os.environ["ELEVENLABS_API_KEY"] = ""
os.environ["LLM_API_KEY"] = ""
os.environ["STT_API_KEY"] = ""
os.environ["DEBUG"] = "false"
