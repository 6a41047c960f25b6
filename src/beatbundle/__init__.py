"""
Beat Bundle Pipeline - Localized multimedia bundles from narrated beats.

A pipeline for:
- Splitting a source video into silence-aligned segments
- Deriving per-segment clips, audio, thumbnails and transcripts (cached)
- Translating narration and synthesizing speech per target language
- Assembling the mulmo_view.json bundle manifest
- Uploading finished bundles through presigned URLs
"""

__version__ = "0.1.0"
