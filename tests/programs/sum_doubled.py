import sys

data = sys.stdin.read().split()
count = int(data[0])
print(f"{2 * sum(int(value) for value in data[1 : 1 + count])} doubled")
