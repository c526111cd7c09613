"""Messages for the internal invariant violations collectors report.

They are raised as ScorecardError(INTERNAL, <message>) so callers can match
the exact condition.
"""

ERR_COMMITISH_NIL = "commitish nil"
ERR_INVALID_GITHUB_WORKFLOW = "invalid GitHub workflow"
ERR_INVALID_REPO_URI = "invalid repository URI"
ERR_INVALID_DOCKERFILE = "invalid Dockerfile"
