from src.messaging.dedup import OutboundDedupGuard

__all__ = ["OutboundDedupGuard"]
