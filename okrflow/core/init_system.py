import logging
from okrflow.core.config import settings
from okrflow.database import SessionLocal
from okrflow.services.scoring import GradingService
from okrflow.services.workflow_registry import WorkflowRegistry

logger = logging.getLogger(__name__)


def init_system_data():
    """
    Installs the default approval workflows and grade bands when their tables
    are empty. Existing configuration is never overwritten.
    """
    if not settings.seed_defaults:
        logger.info("Default seeding disabled (SEED_DEFAULTS=false)")
        return

    db = SessionLocal()
    try:
        workflows = WorkflowRegistry(db).seed_defaults()
        bands = GradingService(db).seed_defaults()
        if workflows or bands:
            logger.info(f"✓ Seeded {workflows} workflow(s) and {bands} grade band(s)")
        else:
            logger.info("System initialization check: configuration already present.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error during system initialization check: {str(e)}", exc_info=True)
    finally:
        db.close()
