from .rotation import Decision, Image, RotationPlan, parse_name, plan_rotation

__all__ = ['Decision', 'Image', 'RotationPlan', 'parse_name', 'plan_rotation']
