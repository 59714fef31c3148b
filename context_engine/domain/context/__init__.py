# This module handles context resolution

# +---------------------+   +---------------------+
# |  Primitive Registry |   |  Capability Index   |   (Immutable snapshots,
# |---------------------|   |---------------------|    swapped on reload)
# | Instructions        |   | connector -> tools  |
# | Prompts / Agents    |   +---------------------+
# | Skills              |
# +---------------------+
#
#    \    /
#     \  /
#      \/
# +------------------------------+
# |      Precedence Resolver     |   (One-shot per request)
# |------------------------------|
# | 0 base     instructions      |
# | 1 topic    matched skills    |  <- TriggerMatcher
# | 2 task     bound prompt      |  <- TemplateBinder
# | 3 persona  agent + tools     |  <- ScopeEnforcer
# | conflicts  highest wins      |  <- ConflictDetector
# +------------------------------+
#         |
#         v
#   [ContextBundle -> agent runtime]
