from .behavior_detector import DetectedBehavior, detect_behaviors
