"""
Utility modules for the transcription service
File ownership, retry and formatting helpers

Import directly to keep module loading cheap:
    from app.utils.files import ScratchFiles
    from app.utils.helpers import RetryPolicy, retry_async
"""
