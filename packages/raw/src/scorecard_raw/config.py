import os
from pathlib import Path
from typing import Optional

import yaml

CHECK_NAMES = (
    "branch_protection",
    "code_review",
    "ci_tests",
    "dangerous_workflow",
    "license",
    "mttu_dependencies",
    "pinned_dependencies",
    "tag_protection",
    "webhooks",
    "contributors",
    "security_policy",
    "binary_artifacts",
    "dependency_update_tool",
    "signed_releases",
    "releases_deps_vulnfree",
)

DEFAULT_CONFIG: dict = {
    "commit_depth": 30,  # number of default-branch commits fetched for code review and CI checks
    "depsdev_base_url": "https://api.deps.dev/v3alpha",
    "http_timeout": 15,  # seconds, for package registry requests
    "checks": list(CHECK_NAMES),
    "exclude_paths": ["testdata/", "src/test/"],  # directory prefixes skipped by every file scan
}


def load_config(config_path: str = ".scorecard.yml", overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .scorecard.yml in the current directory
      3. Caller overrides
    """
    config = {
        **DEFAULT_CONFIG,
        "checks": list(DEFAULT_CONFIG["checks"]),
        "exclude_paths": list(DEFAULT_CONFIG["exclude_paths"]),
    }

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"{config_path} must contain a mapping, got {type(file_config).__name__}")
        config.update(file_config)

    if overrides:
        for key, value in overrides.items():
            if value is not None:
                config[key] = value

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")

    return config
