from travelsync.infrastructure.proposals.in_memory import InMemoryProposalRepository
from travelsync.infrastructure.proposals.postgres import PostgresProposalRepository

__all__ = ["InMemoryProposalRepository", "PostgresProposalRepository"]
