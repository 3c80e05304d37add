"""Application services: validation, dependency preparation, polling and orchestration."""
