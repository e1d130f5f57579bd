# dkg/__init__.py
from dkg.config import Config
from dkg.generator import (
    DistKeyGenerator, Phase, new_dist_key_generator, new_dist_key_handler,
)
from dkg.messages import Deal, Response, Justification, Status
from dkg.share import DistKeyShare

__all__ = [
    "Config", "DistKeyGenerator", "Phase", "new_dist_key_generator",
    "new_dist_key_handler", "Deal", "Response", "Justification", "Status",
    "DistKeyShare",
]
