"""Not a migration, the registry must ignore this file"""

VALUE = 1
