"""Terraform state: server details and sensitive attribute masking."""

from hcloud_config.state.details import server_details_mapping
from hcloud_config.state.store import (
    TF_STATE_FILENAME,
    load_tf_state,
    mask_sensitive_attributes,
    mask_state_file,
    write_tf_state,
)

__all__ = [
    "TF_STATE_FILENAME",
    "load_tf_state",
    "mask_sensitive_attributes",
    "mask_state_file",
    "server_details_mapping",
    "write_tf_state",
]
