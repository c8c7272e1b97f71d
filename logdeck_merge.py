"""
logdeck_merge.py — merge several stores into one newest-first feed

Order is timestamp descending, ties broken by record id descending, so two
producers logging within the same clock tick still yield a total order.
Pull based: nothing is cached, callers run unify() once per refresh.
"""

import heapq


def order_key(record):
    return record.timestamp, record.id


def unify(stores) -> list:
    # Each store hands out a newest-first snapshot. sorted() is linear on
    # already ordered input and repairs producers that appended out of order.
    runs = [sorted(st.get_all(), key=order_key, reverse=True) for st in stores]
    return list(heapq.merge(*runs, key=order_key, reverse=True))
