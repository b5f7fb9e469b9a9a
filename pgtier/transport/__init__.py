# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Transports - Remote backup stores.
"""

from pgtier.config import BackupConfig, Transport
from pgtier.transport.s3 import S3Store
from pgtier.transport.ssh import SSHStore


def create_store(config: BackupConfig) -> SSHStore | S3Store:
    """
    Create the remote store selected by the configuration.

    Args:
        config: pgtier configuration

    Returns:
        Store implementing both the transfer and listing contracts
    """
    if config.transport == Transport.S3:
        return S3Store(
            bucket=config.store,
            prefix=config.remote_root,
            region=config.region,
            endpoint_url=config.s3_endpoint_url,
            work_dir=config.work_dir,
        )
    return SSHStore(
        host=config.store,
        remote_root=config.remote_root,
        work_dir=config.work_dir,
        timeout=config.command_timeout,
    )


__all__ = [
    "SSHStore",
    "S3Store",
    "create_store",
]
