from pathlib import Path

from dotenv import load_dotenv


def load_env(env_path: Path | None = None) -> bool:
    """Load .env from the working directory if present.

    Existing environment variables win over values in the file.
    Returns True when the file defined at least one variable.
    """
    env_path = env_path or Path.cwd() / ".env"
    if not env_path.exists():
        return False
    return load_dotenv(dotenv_path=env_path, override=False)
