"""
Helpers that split a daemon torrent list into downloading and completed sets.
"""

from dataclasses import replace
from typing import Dict, Iterable, List

from torrent_courier.models.torrent import DaemonTorrent, TorrentStatus


def downloading(torrents: Iterable[DaemonTorrent]) -> Dict[int, DaemonTorrent]:
    """
    Returns active torrents that are not finished, keyed by ID.

    A torrent that is not receiving data has no meaningful time remaining, so
    its `eta` is reported as None.
    """
    output = {}
    for torrent in torrents:
        if torrent.status == TorrentStatus.STOPPED or torrent.percent_done >= 1:
            continue
        if torrent.rate_download <= 0:
            torrent = replace(torrent, eta=None)
        elif torrent.eta is None:
            torrent = replace(
                torrent, eta=torrent.left_until_done // torrent.rate_download
            )
        output[torrent.id] = torrent
    return output


def completed(torrents: Iterable[DaemonTorrent]) -> List[DaemonTorrent]:
    """Returns torrents that have every wanted byte."""
    return [torrent for torrent in torrents if torrent.percent_done == 1]
