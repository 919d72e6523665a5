# Services package.
#
#   article_store    — the store gateway: atomic reads and conditional writes
#   article_service  — article detail, user status, listing and stats
#   comment_service  — one-comment-per-user submission + comment pages
#   vote_service     — one-vote-per-user counter
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.
