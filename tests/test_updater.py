import time

from kadnet.kbucket import Kbucket
from kadnet.node import Node
from kadnet.updater import Updater

OLD = Node("10.0.0.5", 7000)
NEW = Node("10.0.0.6", 7001)
OTHER = Node("10.0.0.7", 7002)


def _wait_until(condition, seconds=3.0):
    deadline = time.monotonic() + seconds
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


def test_check_pings_old_node_and_records_pending():
    pinged = []
    updater = Updater(pinged.append, timeout=60)
    updater.check_update_bucket(OLD, NEW, Kbucket([OLD]))
    assert pinged == [OLD]
    assert updater.pending() == {OLD: NEW}
    updater.close()


def test_first_replacement_is_kept():
    updater = Updater(lambda node: None, timeout=60)
    bucket = Kbucket([OLD])
    updater.check_update_bucket(OLD, NEW, bucket)
    updater.check_update_bucket(OLD, OTHER, bucket)
    assert updater.pending() == {OLD: NEW}
    updater.close()


def test_pong_prevents_replacement():
    updater = Updater(lambda node: None, timeout=60)
    bucket = Kbucket([OLD, OTHER])
    updater.check_update_bucket(OLD, NEW, bucket)
    updater.process_pong(OLD)
    assert updater.pending() == {}
    assert updater.expire(OLD, NEW, bucket) is False
    assert bucket.nodes() == [OLD, OTHER]
    updater.close()


def test_expire_replaces_silent_node():
    updater = Updater(lambda node: None, timeout=60)
    bucket = Kbucket([OTHER, OLD])
    updater.check_update_bucket(OLD, NEW, bucket)
    assert updater.expire(OLD, NEW, bucket) is True
    assert bucket.nodes() == [NEW, OTHER]
    assert updater.pending() == {}
    updater.close()


def test_timer_replaces_after_timeout():
    updater = Updater(lambda node: None, timeout=0.05)
    bucket = Kbucket([OLD])
    updater.check_update_bucket(OLD, NEW, bucket)
    assert _wait_until(lambda: NEW in bucket)
    assert OLD not in bucket
    assert updater.pending() == {}


def test_close_cancels_replacement():
    updater = Updater(lambda node: None, timeout=0.2)
    bucket = Kbucket([OLD])
    updater.check_update_bucket(OLD, NEW, bucket)
    updater.close()
    time.sleep(0.4)
    assert bucket.nodes() == [OLD]
    assert updater.pending() == {OLD: NEW}


def test_full_bucket_uses_updater():
    pinged = []
    updater = Updater(pinged.append, timeout=60)
    nodes = [Node("10.0.1.1", 8000 + i) for i in range(6)]
    bucket = Kbucket(nodes, on_full=updater.check_update_bucket)
    bucket.add_node(NEW)
    assert pinged == [nodes[-1]]
    assert updater.pending() == {nodes[-1]: NEW}
    assert updater.expire(nodes[-1], NEW, bucket) is True
    assert bucket.nodes()[0] == NEW
    assert nodes[-1] not in bucket
    updater.close()