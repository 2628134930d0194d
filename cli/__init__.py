"""``mytagdata`` command line: ``serve`` runs the receiver, ``send`` posts a test reading."""
