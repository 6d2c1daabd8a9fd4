"""
Reconcile AWS ElastiCache replication groups: create, read, update and delete a group
and wait until AWS reports the desired status.
"""
