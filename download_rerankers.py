from pathlib import Path
import os

from huggingface_hub import snapshot_download
from creator_search import config


def main() -> None:
    # Same HF env as the local cross-encoder backend, but ONLINE for this script
    os.environ.update(config.HF_ENV_VARS)
    os.environ["HF_HUB_OFFLINE"] = "0"

    # huggingface_hub reads its env at import time, so the cache dir is passed explicitly
    cache_root = Path(config.HF_ENV_VARS["HF_HUB_CACHE"]).resolve()
    print(f"Using HF_HUB_CACHE: {cache_root}")

    def fetch(repo_id: str) -> str:
        print(f"\nDownloading repo: {repo_id}")
        local_path = snapshot_download(repo_id=repo_id, cache_dir=str(cache_root), local_files_only=False)
        print(f"Cached at: {local_path}")

        cfg = Path(local_path) / "config.json"
        if cfg.exists():
            print(f"  Found config.json at: {cfg}")
        else:
            print(f"  WARNING: config.json NOT found in: {local_path}")
        return local_path

    # CrossEncoderReranker tries these in order
    paths = {repo: fetch(repo) for repo in config.CROSS_ENCODER_CANDIDATES}

    print("\nSummary:")
    for repo, path in paths.items():
        print(f"  {repo} cached at: {path}")
    print("\nFinished downloading cross-encoder models for offline use.")


if __name__ == "__main__":
    main()
