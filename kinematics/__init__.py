"""Robot kinematics: PoE model and constrained IK."""
