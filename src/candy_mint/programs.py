"""Program ids, Anchor discriminators and PDA derivations used by the mint flow."""

from __future__ import annotations

import hashlib

from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID

CANDY_MACHINE_PROGRAM_ID = Pubkey.from_string("CndyV3LdqHUfDLmE5naZjVN8rBZz4tqhdefbAnjHG3JR")
CANDY_GUARD_PROGRAM_ID = Pubkey.from_string("Guard1JwRhJkVH6XZhzoYxeBVQe872VH6QggF4BWmS9g")
TOKEN_METADATA_PROGRAM_ID = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")
SYSVAR_INSTRUCTIONS_ID = Pubkey.from_string("Sysvar1nstructions1111111111111111111111111")
SYSVAR_SLOT_HASHES_ID = Pubkey.from_string("SysvarS1otHashes111111111111111111111111111")

__all__ = [
    "ASSOCIATED_TOKEN_PROGRAM_ID",
    "CANDY_GUARD_PROGRAM_ID",
    "CANDY_MACHINE_PROGRAM_ID",
    "SYSTEM_PROGRAM_ID",
    "SYSVAR_INSTRUCTIONS_ID",
    "SYSVAR_SLOT_HASHES_ID",
    "TOKEN_METADATA_PROGRAM_ID",
    "TOKEN_PROGRAM_ID",
    "account_discriminator",
    "candy_machine_authority_pda",
    "collection_delegate_record_pda",
    "instruction_discriminator",
    "master_edition_pda",
    "metadata_pda",
    "token_record_pda",
]


def account_discriminator(name: str) -> bytes:
    """Return the 8-byte Anchor discriminator for an account type."""

    return hashlib.sha256(f"account:{name}".encode("utf-8")).digest()[:8]


def instruction_discriminator(name: str) -> bytes:
    """Return the 8-byte Anchor discriminator for an instruction."""

    return hashlib.sha256(f"global:{name}".encode("utf-8")).digest()[:8]


def candy_machine_authority_pda(candy_machine: Pubkey) -> Pubkey:
    pda, _ = Pubkey.find_program_address(
        [b"candy_machine", bytes(candy_machine)], CANDY_MACHINE_PROGRAM_ID
    )
    return pda


def metadata_pda(mint: Pubkey) -> Pubkey:
    pda, _ = Pubkey.find_program_address(
        [b"metadata", bytes(TOKEN_METADATA_PROGRAM_ID), bytes(mint)],
        TOKEN_METADATA_PROGRAM_ID,
    )
    return pda


def master_edition_pda(mint: Pubkey) -> Pubkey:
    pda, _ = Pubkey.find_program_address(
        [b"metadata", bytes(TOKEN_METADATA_PROGRAM_ID), bytes(mint), b"edition"],
        TOKEN_METADATA_PROGRAM_ID,
    )
    return pda


def token_record_pda(mint: Pubkey, token: Pubkey) -> Pubkey:
    pda, _ = Pubkey.find_program_address(
        [
            b"metadata",
            bytes(TOKEN_METADATA_PROGRAM_ID),
            bytes(mint),
            b"token_record",
            bytes(token),
        ],
        TOKEN_METADATA_PROGRAM_ID,
    )
    return pda


def collection_delegate_record_pda(
    collection_mint: Pubkey, update_authority: Pubkey, delegate: Pubkey
) -> Pubkey:
    """Metadata delegate record granting the machine authority PDA collection rights."""

    pda, _ = Pubkey.find_program_address(
        [
            b"metadata",
            bytes(TOKEN_METADATA_PROGRAM_ID),
            bytes(collection_mint),
            b"collection_delegate",
            bytes(update_authority),
            bytes(delegate),
        ],
        TOKEN_METADATA_PROGRAM_ID,
    )
    return pda
