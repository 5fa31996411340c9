# This module handles context for the intent pipeline

# +---------------------+
# |     Long-term       |   (Persistent, global, SQLite)
# |---------------------|
# | user.*              |
# | preference.*        |
# | project.* person.*  |
# +---------------------+

# +---------------------+
# |     Session         |   (Per client, until disconnect)
# |---------------------|
# | Active resource     |
# +---------------------+

# +---------------------+
# |     Short-term      |   (Per client, 3 turns or 60s)
# |---------------------|
# | Recent intents      |
# | and their results   |
# +---------------------+

#    \    /
#     \  /
#      \/
# +------------------------------+
# |        ContextSnapshot       |   (Assembled per request)
# |------------------------------|
# | Recent intents               |
# | Active resource              |
# | Requested memory namespaces  |
# +------------------------------+
#         |
#         v
#   [Intent parser / NLP call]

from .context_manager import ContextManager

__all__ = ["ContextManager"]
