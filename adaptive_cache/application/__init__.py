"""Application layer: the UpstreamGateway facade exposed to the tool layer."""

from adaptive_cache.application.gateway import UpstreamGateway, build_gateway

__all__ = ["UpstreamGateway", "build_gateway"]
