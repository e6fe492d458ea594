"""libvrm.schema

Fixed names from the VRM 0.x schema that the codec checks against.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

EXTENSION_NAME = "VRM"
DEFAULT_EXPORTER_VERSION = "libvrm-0.1"

UNKNOWN_PRESET = "unknown"

# vrm.blendshape.group.schema.json presetName enum
BLENDSHAPE_PRESETS = frozenset([
    "unknown",
    "neutral",
    "a", "i", "u", "e", "o",
    "blink", "blink_l", "blink_r",
    "joy", "angry", "sorrow", "fun",
    "lookup", "lookdown", "lookleft", "lookright",
])

# vrm.humanoid.bone.schema.json bone enum
HUMANOID_BONES = frozenset([
    "hips", "spine", "chest", "upperChest", "neck", "head", "jaw",
    "leftEye", "rightEye",
    "leftUpperLeg", "leftLowerLeg", "leftFoot", "leftToes",
    "rightUpperLeg", "rightLowerLeg", "rightFoot", "rightToes",
    "leftShoulder", "leftUpperArm", "leftLowerArm", "leftHand",
    "rightShoulder", "rightUpperArm", "rightLowerArm", "rightHand",
    "leftThumbProximal", "leftThumbIntermediate", "leftThumbDistal",
    "leftIndexProximal", "leftIndexIntermediate", "leftIndexDistal",
    "leftMiddleProximal", "leftMiddleIntermediate", "leftMiddleDistal",
    "leftRingProximal", "leftRingIntermediate", "leftRingDistal",
    "leftLittleProximal", "leftLittleIntermediate", "leftLittleDistal",
    "rightThumbProximal", "rightThumbIntermediate", "rightThumbDistal",
    "rightIndexProximal", "rightIndexIntermediate", "rightIndexDistal",
    "rightMiddleProximal", "rightMiddleIntermediate", "rightMiddleDistal",
    "rightRingProximal", "rightRingIntermediate", "rightRingDistal",
    "rightLittleProximal", "rightLittleIntermediate", "rightLittleDistal",
])


def normalize_preset_name(preset_name: Any) -> str:
    # Every non-conformant preset must read as "unknown"; duplicates are fine.
    if isinstance(preset_name, str) and preset_name in BLENDSHAPE_PRESETS:
        return preset_name
    logger.warning("Non-conformant blendshape preset name %r, treating as 'unknown'", preset_name)
    return UNKNOWN_PRESET
