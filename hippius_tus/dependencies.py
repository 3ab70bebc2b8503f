from fastapi import Request

from hippius_tus.protocol.engine import UploadProtocolEngine


def get_engine(request: Request) -> UploadProtocolEngine:
    """Extract the upload protocol engine built during startup."""
    engine: UploadProtocolEngine = request.app.state.engine
    return engine
