"""Journey search building blocks: queries, class masks, lower bounds, start times, journeys, RAPTOR state and reconstruction."""