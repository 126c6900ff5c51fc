"""Redis Lua scripts for fixed-window rate limiting.

Each script runs atomically on the Redis server, so concurrent checks for
one key from any number of instances are linearized. Counter records are
hashes with two fields: ``count`` and ``reset_at`` (epoch milliseconds).
Keys expire shortly after their window so Redis reclaims them on its own.
"""

# Check-and-consume in one step: (re)create an absent or expired window
# with count=1, refuse without incrementing when the ceiling is reached,
# otherwise increment.
# Returns {allowed, count, reset_at}
CHECK_AND_CONSUME_SCRIPT = """
    local key = KEYS[1]
    local max_requests = tonumber(ARGV[1])
    local window_ms = tonumber(ARGV[2])
    local now_ms = tonumber(ARGV[3])
    local grace_ms = tonumber(ARGV[4])

    local fields = redis.call('HMGET', key, 'count', 'reset_at')
    local count = tonumber(fields[1])
    local reset_at = tonumber(fields[2])

    if count == nil or reset_at == nil or now_ms > reset_at then
        reset_at = now_ms + window_ms
        redis.call('HSET', key, 'count', 1, 'reset_at', reset_at)
        redis.call('PEXPIREAT', key, reset_at + grace_ms)
        return {1, 1, reset_at}
    end

    if count >= max_requests then
        return {0, count, reset_at}
    end

    count = redis.call('HINCRBY', key, 'count', 1)
    return {1, count, reset_at}
"""

# Return the live window for a key, opening an empty one if needed.
# Returns {count, reset_at}
GET_OR_CREATE_SCRIPT = """
    local key = KEYS[1]
    local window_ms = tonumber(ARGV[1])
    local now_ms = tonumber(ARGV[2])
    local grace_ms = tonumber(ARGV[3])

    local fields = redis.call('HMGET', key, 'count', 'reset_at')
    local count = tonumber(fields[1])
    local reset_at = tonumber(fields[2])

    if count == nil or reset_at == nil or now_ms > reset_at then
        reset_at = now_ms + window_ms
        count = 0
        redis.call('HSET', key, 'count', count, 'reset_at', reset_at)
        redis.call('PEXPIREAT', key, reset_at + grace_ms)
    end
    return {count, reset_at}
"""

# Increment an existing window without touching its reset instant.
# Returns {count, reset_at}, or an empty reply when the key does not exist.
INCREMENT_SCRIPT = """
    local key = KEYS[1]
    local reset_at = tonumber(redis.call('HGET', key, 'reset_at'))
    if reset_at == nil then
        return nil
    end
    local count = redis.call('HINCRBY', key, 'count', 1)
    return {count, reset_at}
"""
