import asyncio
import logging
from dataclasses import dataclass

from pyresume import delay, run

logging.basicConfig(level=logging.CRITICAL)


@dataclass
class DataPipeline:
    id: str
    value: int

    @run
    def validate(self):
        yield delay(0.05)
        print(f"{self.id} Validating: {self.value}")
        return self.value

    @run
    def transform(self, input: int):
        yield delay(0.05)
        result = input * 2
        print(f"{self.id} Transforming: {input} -> {result}")
        return result

    @run
    def process(self):
        validated = yield self.validate()
        return (yield self.transform(validated))


async def main():
    pipeline = DataPipeline(id="data_001", value=42)

    result = await pipeline.process()
    print(f"Pipeline complete: {result}")

    # Same pipeline, callback style
    done = asyncio.Event()

    def report(error, result):
        print(f"Callback got error={error!r} result={result!r}")
        done.set()

    pipeline.process(report)
    await done.wait()


if __name__ == "__main__":
    asyncio.run(main())
