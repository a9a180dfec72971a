import logging
from typing import Any, Dict, TypeVar

from pydantic import BaseModel

ConfigT = TypeVar("ConfigT", bound=BaseModel)


def apply_config_updates(config: ConfigT, changes: Dict[str, Any], logger: logging.Logger, label: str) -> ConfigT:
    """Return a re-validated copy of `config` with `changes` merged in.

    Unknown keys are skipped with a warning; invalid values raise pydantic.ValidationError
    and leave the caller's config untouched.
    """
    known = type(config).model_fields
    updates = {}
    for key, value in changes.items():
        if key in known:
            updates[key] = value
        else:
            logger.warning(f"Ignoring unknown {label} config key: {key}")
    updated = type(config).model_validate({**config.model_dump(), **updates})
    for key, value in updates.items():
        logger.info(f"Updated {label} config: {key} = {value}")
    return updated
