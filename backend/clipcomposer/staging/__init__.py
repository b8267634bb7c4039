"""Staging of uploaded clips: temp store, stager and sweep loop."""

from clipcomposer.staging.asset_stager import AssetStager, OwnedAssets, RawClipFile
from clipcomposer.staging.sweeper import SweepLoop
from clipcomposer.staging.temp_store import TempAsset, TempResourceStore

__all__ = [
    "AssetStager",
    "OwnedAssets",
    "RawClipFile",
    "SweepLoop",
    "TempAsset",
    "TempResourceStore",
]
