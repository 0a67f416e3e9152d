def load_env_file() -> None:
    """Load environment variables from a local .env file if not already set.

    WHAT:
        Loads variables from .env into os.environ without overwriting
        variables that are already set.
    WHY:
        Lets developers point DATABASE_URL / REDIS_URL at local services
        without touching the real environment of a deployment.
    """
    import logging
    from dotenv import load_dotenv

    logger = logging.getLogger(__name__)

    # True whenever the file exists, even if every variable was already set
    loaded = load_dotenv(override=False)

    if loaded:
        logger.info("Loaded local .env file (existing variables were NOT overwritten)")
    else:
        logger.debug("No local .env file found or loaded")
