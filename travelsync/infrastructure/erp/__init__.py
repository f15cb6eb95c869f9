from travelsync.infrastructure.erp.simulator import DeterministicErpSimulator

__all__ = ["DeterministicErpSimulator"]
